from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

_MAX_NAME_LEN = 256  # generous; account rules are enforced by the credential service
_MAX_HASH_LEN = 256


class MessageType(StrEnum):
    CHAT = "chat"
    PRIVATE = "private"
    USER_LIST = "user_list"
    HISTORY = "history"
    SYSTEM = "system"
    LOGIN = "login"
    REGISTER = "register"
    GETSALT = "getsalt"
    RETURNSALT = "returnsalt"


class AuthReply(StrEnum):
    """Bare-string replies to register and login."""

    SUCCESS = "success"
    NAME_TAKEN = "用户名已存在，请更换用户名后重试"
    INTERNAL_ERROR = "服务器内部错误"
    USER_NOT_FOUND = "用户不存在，请注册"
    BAD_CREDENTIALS = "用户名或密码错误"
    ALREADY_ONLINE = "用户名已存在"
    INVALID_FORMAT = "用户名或密码格式错误"


# -- client -> server --


class GetSaltData(BaseModel):
    username: str = Field(max_length=_MAX_NAME_LEN)


class GetSaltMessage(BaseModel):
    type: Literal[MessageType.GETSALT] = MessageType.GETSALT
    data: GetSaltData


class RegisterData(BaseModel):
    username: str = Field(max_length=_MAX_NAME_LEN)
    password_hash: str = Field(max_length=_MAX_HASH_LEN)
    salt: bytes


class RegisterMessage(BaseModel):
    type: Literal[MessageType.REGISTER] = MessageType.REGISTER
    data: RegisterData


class LoginData(BaseModel):
    username: str = Field(max_length=_MAX_NAME_LEN)
    password: str = Field(max_length=_MAX_HASH_LEN)  # the salted hex hash, never cleartext


class LoginMessage(BaseModel):
    type: Literal[MessageType.LOGIN] = MessageType.LOGIN
    data: LoginData


class ChatData(BaseModel):
    content: str  # free text; the codec bounds its size
    sender: str | None = None  # ignored; the server stamps the authenticated name


class ChatMessage(BaseModel):
    type: Literal[MessageType.CHAT] = MessageType.CHAT
    data: ChatData


class PrivateData(BaseModel):
    to: str = Field(max_length=_MAX_NAME_LEN)
    content: str
    sender: str | None = None


class PrivateMessage(BaseModel):
    type: Literal[MessageType.PRIVATE] = MessageType.PRIVATE
    data: PrivateData


ClientMessage = GetSaltMessage | RegisterMessage | LoginMessage | ChatMessage | PrivateMessage

JOINED_MESSAGES = (ChatMessage, PrivateMessage)

_CLIENT_MESSAGE_MODELS: dict[str, type[ClientMessage]] = {
    MessageType.GETSALT: GetSaltMessage,
    MessageType.REGISTER: RegisterMessage,
    MessageType.LOGIN: LoginMessage,
    MessageType.CHAT: ChatMessage,
    MessageType.PRIVATE: PrivateMessage,
}


def parse_client_message(raw: dict[str, Any]) -> ClientMessage | None:
    """Parse a decoded record into a typed client message.

    Returns None for a type the server does not accept from peers (future
    or server-only types), which callers ignore. Raises ValidationError
    when a known type carries a malformed payload.
    """
    msg_type = raw.get("type")
    if not isinstance(msg_type, str):
        raise ValueError("record has no string 'type' tag")
    model = _CLIENT_MESSAGE_MODELS.get(msg_type)
    if model is None:
        return None
    return model.model_validate({"data": raw.get("data")})


# -- server -> client --


class ReturnSaltData(BaseModel):
    salt: bytes


class ReturnSaltMessage(BaseModel):
    type: Literal[MessageType.RETURNSALT] = MessageType.RETURNSALT
    data: ReturnSaltData


class ChatBroadcastData(BaseModel):
    sender: str
    content: str


class ChatBroadcastMessage(BaseModel):
    """Broadcast line; also carries arrival and departure announcements."""

    type: Literal[MessageType.CHAT] = MessageType.CHAT
    data: ChatBroadcastData


class PrivateDeliveryData(BaseModel):
    sender: str
    to: str
    content: str


class PrivateDeliveryMessage(BaseModel):
    type: Literal[MessageType.PRIVATE] = MessageType.PRIVATE
    data: PrivateDeliveryData


class UserListData(BaseModel):
    users: dict[str, bool]


class UserListMessage(BaseModel):
    type: Literal[MessageType.USER_LIST] = MessageType.USER_LIST
    data: UserListData


class HistoryData(BaseModel):
    log: str


class HistoryMessage(BaseModel):
    type: Literal[MessageType.HISTORY] = MessageType.HISTORY
    data: HistoryData


class SystemData(BaseModel):
    content: str


class SystemMessage(BaseModel):
    type: Literal[MessageType.SYSTEM] = MessageType.SYSTEM
    data: SystemData


def return_salt(salt: bytes) -> dict[str, Any]:
    return ReturnSaltMessage(data=ReturnSaltData(salt=salt)).model_dump()


def chat_broadcast(sender: str, content: str) -> dict[str, Any]:
    return ChatBroadcastMessage(data=ChatBroadcastData(sender=sender, content=content)).model_dump()


def private_delivery(sender: str, to: str, content: str) -> dict[str, Any]:
    return PrivateDeliveryMessage(data=PrivateDeliveryData(sender=sender, to=to, content=content)).model_dump()


def user_list(names: list[str]) -> dict[str, Any]:
    return UserListMessage(data=UserListData(users=dict.fromkeys(names, True))).model_dump()


def history(line: str) -> dict[str, Any]:
    return HistoryMessage(data=HistoryData(log=line)).model_dump()


def system_notice(content: str) -> dict[str, Any]:
    return SystemMessage(data=SystemData(content=content)).model_dump()
