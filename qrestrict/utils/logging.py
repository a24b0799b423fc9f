from enum import Enum
from typing import Union

__all__ = ["Color", "LOG_LEVELS", "debug", "info", "set_log_level", "get_log_level"]

class Color(Enum):
    GREEN          = '\033[32m'
    CYAN           = '\033[36m'
    RESET          = '\033[0m'

    def __str__(self):
        return self.value

    def __call__(self, s):
        return str(self) + str(s) + str(Color.RESET)

LOG_LEVELS = {
    'debug': 0,
    'info':  1,
    'warn':  2,
    'error': 3,
}

log_level = LOG_LEVELS['info']

def set_log_level(level: Union[str, int]):
    global log_level
    if isinstance(level, str):
        if level not in LOG_LEVELS:
            raise ValueError(
                f'Unknown log level: {level}. Values are {list(LOG_LEVELS.keys())}'
            )
        log_level = LOG_LEVELS[level]
    else:
        if int(level) not in LOG_LEVELS.values():
            raise ValueError(
                f'Unknown log level: {level}. Values are {list(LOG_LEVELS.values())}'
            )
        log_level = int(level)

def get_log_level():
    return log_level

# Per-operator trace of the restriction pass
def debug(*args):
    if log_level <= LOG_LEVELS['debug']:
        print(Color.CYAN('qrestrict:'), *args)

def info(*args):
    if log_level <= LOG_LEVELS['info']:
        print(*args)
