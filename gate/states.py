from enum import Enum


class GateState(str, Enum):
    UNKNOWN = "UNKNOWN"
    AUTHENTICATED_SELLER = "AUTHENTICATED_SELLER"
    UNAUTHENTICATED = "UNAUTHENTICATED"
