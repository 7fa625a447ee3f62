"""Tool invocation pipeline: normalization, input policies, invocation."""

from .arguments import normalize
from .inputs import InputPolicy, build_input_policy
from .invoker import ToolInvoker

__all__ = ["normalize", "InputPolicy", "build_input_policy", "ToolInvoker"]
