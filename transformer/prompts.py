"""System prompt and request composition."""

from __future__ import annotations

from typing import Optional

from .base import CachedRequest, ContextBlock, FreshRequest, ModelRequest
from .errors import EmptyPromptError

DEFAULT_PERSONA = (
    "You are an expert .NET developer with extensive experience in migrating "
    "applications from .NET Framework to the latest versions of .NET."
)

DEFAULT_INSTRUCTIONS = """<instructions>
- Thoroughly read the code provided in each file in the context
- Understand the dependencies between each file, developing a dependency tree in your mind
- Establish a deep understanding of what the code does and any external dependencies not provided in the context
- Use all of the files to understand this specific environment and its dependencies
- When responding to the user request, be thorough and return the complete files when asked to migrate even if all the lines have not changed
- When responding in the context of a file return the filename as a clickable hyperlink to the filename in markdown syntax
</instructions>"""

DEFAULT_SYSTEM_PROMPT = f"{DEFAULT_PERSONA}\n\n{DEFAULT_INSTRUCTIONS}"


class PromptComposer:
    """Builds the request payload for a generation call.

    A cache reference takes priority: the cached request carries only the
    reference and the user prompt, because the system instruction and the
    context already live server-side.
    """

    def compose(
        self,
        context_block: Optional[ContextBlock],
        system_prompt: str,
        user_prompt: str,
        cache_ref: Optional[str] = None,
    ) -> ModelRequest:
        """Compose a fresh or cached request.

        Args:
            context_block: Assembled code context, ignored when cache_ref is set.
            system_prompt: System instruction for fresh requests.
            user_prompt: The user's instruction.
            cache_ref: Resource name of a live context cache.

        Returns:
            CachedRequest when cache_ref is set, otherwise FreshRequest.

        Raises:
            EmptyPromptError: If user_prompt is empty or whitespace-only.
        """
        if not user_prompt or not user_prompt.strip():
            raise EmptyPromptError("Prompt must not be empty")

        if cache_ref:
            return CachedRequest(cached_content=cache_ref, user_parts=(user_prompt,))

        context_text = context_block.render() if context_block is not None else ""
        return FreshRequest(
            system_instruction=system_prompt,
            user_parts=(context_text, user_prompt),
        )
