from enum import Enum

class BalanceStatus(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    LEAK = "leak"
    ERROR = "error"
    UNKNOWN = "unknown"

class TemperatureStatus(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

class PumpStatus(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

class DataSource(Enum):
    DATABASE = "database"
    ESTIMATED = "estimated"
