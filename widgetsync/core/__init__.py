
from .channel import Channel, InMemoryChannel, SentMessage
from .codecs import (
    MODEL_REFERENCES,
    Codec,
    EncodedState,
    attach_buffers,
    decode_state,
    encode_state,
    extract_buffers,
    ndarray_codec,
    pack_models,
    unpack_models,
)
from .config_manager import ConfigManager, SyncSettings, get_config_manager
from .errors import (
    AttributeValidationError,
    ChildViewCreationError,
    DecodeError,
    EncodeError,
    MessageFormatError,
    ModelNotFoundError,
    SendWithoutChannelError,
    WidgetSyncError,
)
from .events import CustomMessage, LifecycleNotice, ModelEvent, StateChange, Subscription
from .logging_config import configure_logging
from .logging_utils import get_module_logger
from .manager import ModelRegistry, WidgetManager
from .messages import ExecutionState, MessageCallbacks, SyncMode
from .model import DOMWidgetModel, WidgetModel
from .schema import Field, extend_schema
from .view import ContainerView, WidgetView
from .view_list import ViewList

__all__ = [
    'Channel',
    'InMemoryChannel',
    'SentMessage',
    'MODEL_REFERENCES',
    'Codec',
    'EncodedState',
    'attach_buffers',
    'decode_state',
    'encode_state',
    'extract_buffers',
    'ndarray_codec',
    'pack_models',
    'unpack_models',
    'ConfigManager',
    'SyncSettings',
    'get_config_manager',
    'AttributeValidationError',
    'ChildViewCreationError',
    'DecodeError',
    'EncodeError',
    'MessageFormatError',
    'ModelNotFoundError',
    'SendWithoutChannelError',
    'WidgetSyncError',
    'CustomMessage',
    'LifecycleNotice',
    'ModelEvent',
    'StateChange',
    'Subscription',
    'configure_logging',
    'get_module_logger',
    'ModelRegistry',
    'WidgetManager',
    'ExecutionState',
    'MessageCallbacks',
    'SyncMode',
    'DOMWidgetModel',
    'WidgetModel',
    'Field',
    'extend_schema',
    'ContainerView',
    'WidgetView',
    'ViewList',
]
