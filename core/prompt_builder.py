"""
Prompt builder for LLM-driven thinkers.

Generates the system prompt from the tool catalog in the context, so new or
runtime-registered tools show up without code changes. The engine never looks
at this text; only LLMThinker does.
"""

from typing import List, Dict, Any

from core.context import ToolDescription

INTRO = "You are an agent that solves tasks using a ReAct loop (Reason, then Act)."

TOOL_FORMAT = """{
  "thought": "brief reasoning about what to do next",
  "action": {
    "calls": [
      {
        "tool": "tool_name",
        "args": { "arg_name": "arg_value" }
      }
    ]
  }
}"""

ANSWER_FORMAT = """{
  "thought": "brief reasoning about why you're done",
  "answer": "your final answer to the task"
}"""

RULES: List[str] = [
    "Output JSON only. No markdown fences, no extra text, no extra keys.",
    "Thought should be brief (1-2 sentences).",
    "If the task can be answered without tools, respond with the answer format directly.",
    "Use only the tools listed above. Never invent tool names.",
    "Match each tool's expected args exactly as described. All arg values are strings.",
    "You can run multiple tools in parallel by adding items to the calls array.",
    "If a tool returns an error, analyze it and try a different approach.",
    "When you have enough information, respond with the answer format.",
]

PARSE_RETRY_PROMPT = (
    "Your previous response was not valid JSON in one of the two required formats. "
    "Respond again with JSON only, using either the tool format or the answer format."
)


def _format_property(name: str, prop: Dict[str, Any]) -> str:
    """Format a single property for the prompt."""
    if "enum" in prop:
        enum_values = ", ".join(f'"{v}"' for v in prop["enum"])
        type_str = f"one of [{enum_values}]"
    else:
        type_str = prop.get("description") or prop.get("type", "string")
    return f'"{name}": <{type_str}>'


def _format_tool_args(parameters: Dict[str, Any]) -> str:
    """Format the arguments section for a tool."""
    properties = parameters.get("properties", {})
    required = set(parameters.get("required", []))

    if not properties:
        return "{}"

    args = []
    for name, prop in properties.items():
        formatted = _format_property(name, prop)
        if name not in required:
            formatted += " (optional)"
        args.append(formatted)

    return "{" + ", ".join(args) + "}"


def build_tools_prompt(tools: List[ToolDescription]) -> str:
    """
    Format the tool catalog.

    Returns:
        One line per tool with its exact argument names
    """
    if not tools:
        return ""

    lines = ["Available tools:"]
    for tool in tools:
        lines.append(f"- {tool.name}: {tool.description} Args: {_format_tool_args(tool.parameters)}")
    return "\n".join(lines)


def build_system_prompt(tools: List[ToolDescription]) -> str:
    """Full system prompt: intro, tool catalog, response formats, rules."""
    sections = [INTRO]

    tools_section = build_tools_prompt(tools)
    if tools_section:
        sections.append(tools_section)

    sections.append("You MUST respond with valid JSON in one of two formats.")
    sections.append("To use tools:\n" + TOOL_FORMAT)
    sections.append("To give the final answer:\n" + ANSWER_FORMAT)
    sections.append("Rules:\n" + "\n".join(f"- {rule}" for rule in RULES))

    return "\n\n".join(sections) + "\n"
