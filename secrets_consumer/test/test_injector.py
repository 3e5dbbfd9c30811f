import pytest

from secrets_consumer.injector import (
    SANITIZED_ENV_VARS,
    EnvironmentEntry,
    SanitizedEnviron,
    environ_entries,
    environ_mapping,
    inject_environment,
    render_value,
)
from secrets_consumer.utils.exceptions import ReferenceResolutionError


def test_explicit_references() -> None:
    environ = ["API_KEY=secret:api_key", "DB=vault:db_password", "OTHER=1"]
    secrets = {"api_key": "abc", "db_password": "xyz"}
    assert inject_environment(secrets, environ) == [
        "OTHER=1",
        "API_KEY=abc",
        "DB=xyz",
    ]


def test_bulk_injection() -> None:
    secrets = {"api_key": "abc", "count": 8200}
    assert inject_environment(secrets, ["OTHER=1"]) == [
        "OTHER=1",
        "API_KEY=abc",
        "COUNT=8200",
    ]


def test_explicit_reference_disables_bulk_injection() -> None:
    secrets = {"api_key": "abc", "other": "x"}
    result = inject_environment(secrets, ["KEY=secret:api_key"])
    assert result == ["KEY=abc"]
    assert not any(e.startswith("OTHER=") for e in result)


def test_missing_reference() -> None:
    with pytest.raises(ReferenceResolutionError) as e:
        inject_environment({"a": "1"}, ["X=secret:missing"])
    assert e.value.key == "missing"


@pytest.mark.parametrize("prefix", ["secret:", "vault:"])
def test_escaped_reference(prefix: str) -> None:
    result = inject_environment({"X": "resolved"}, [f"NAME=>>{prefix}X"])
    assert f"NAME={prefix}X" in result
    assert "NAME=resolved" not in result


def test_escaped_reference_does_not_count_as_explicit() -> None:
    result = inject_environment({"token": "t"}, ["NAME=>>secret:token"])
    assert result == ["NAME=secret:token", "TOKEN=t"]


def test_escape_prefix_without_reference_passes_unchanged() -> None:
    assert inject_environment({}, ["NAME=>>literal"]) == ["NAME=>>literal"]


def test_denylist() -> None:
    environ = [f"{name}=x" for name in sorted(SANITIZED_ENV_VARS)] + ["KEEP=1"]
    secrets = {"vault_token": "leak", "vault_addr": "leak"}
    result = inject_environment(secrets, environ)
    assert result == ["KEEP=1"]


def test_denylist_applies_to_references() -> None:
    result = inject_environment({"t": "x"}, ["VAULT_TOKEN=secret:t", "A=secret:t"])
    assert result == ["A=x"]


def test_environment_entry_parse() -> None:
    assert EnvironmentEntry.parse("A=secret:k") == EnvironmentEntry(
        name="A", value="secret:k", reference="k"
    )
    assert EnvironmentEntry.parse("A=b=c") == EnvironmentEntry(name="A", value="b=c")
    assert EnvironmentEntry.parse("A=") == EnvironmentEntry(name="A", value="")


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, "true"),
        (False, "false"),
        (None, ""),
        (8200, "8200"),
        (1.5, "1.5"),
        ({"a": 1}, '{"a": 1}'),
        (["a", "b"], '["a", "b"]'),
        ("text", "text"),
    ],
)
def test_render_value(value, expected: str) -> None:
    assert render_value(value) == expected


def test_sanitized_environ_append_var() -> None:
    environ = SanitizedEnviron()
    environ.append_var("VAULT_ROLE", "r")
    environ.append_var("FLAG", True)
    assert environ == ["FLAG=true"]


def test_environ_round_trip_last_entry_wins() -> None:
    assert environ_entries({"A": "1", "B": "x=y"}) == ["A=1", "B=x=y"]
    assert environ_mapping(["A=1", "B=x=y", "A=2"]) == {"A": "2", "B": "x=y"}
