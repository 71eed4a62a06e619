"""Supporting utilities."""

from cloud_common.utils.callbacks import callbackify, invoke_callback, promisify
from cloud_common.utils.json_serializers import json_serializer
from cloud_common.utils.objects import is_custom_type

__all__ = [
    "callbackify",
    "invoke_callback",
    "promisify",
    "json_serializer",
    "is_custom_type",
]
