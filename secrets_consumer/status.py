class ExitCodes:
    SUCCESS = 0
    ERROR = 1
    USAGE_ERROR = 2
