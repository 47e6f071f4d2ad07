from enum import Enum


class TransactionStatus(str, Enum):
    COMPLETED = "Completed"
