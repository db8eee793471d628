from enum import StrEnum


class SessionPhase(StrEnum):
    """Lifecycle of a connection; only ever moves forward."""

    PREAUTH = "preauth"
    JOINED = "joined"
    CLOSED = "closed"


JOIN_ANNOUNCEMENT = "{name} 进入了聊天室"
LEAVE_ANNOUNCEMENT = "{name} 离开了聊天室"
RECIPIENT_OFFLINE_NOTICE = "用户 '{name}' 不存在或不在线"
BROADCAST_LINE = "[{name}]：{content}"
