"""
Built-in tools.

The shell tool is the canonical tool: sandboxed, policy-gated command
execution. Approval gates decide on interactive confirmation.
"""

from tools.approval import AutoApprove, ConsoleApproval, SignalApproval
from tools.shell import ShellConfig, ShellPolicy, ShellTool, truncate_output

__all__ = [
    "AutoApprove",
    "ConsoleApproval",
    "SignalApproval",
    "ShellConfig",
    "ShellPolicy",
    "ShellTool",
    "truncate_output",
]
