"""
Identity Prompts - Perspective Character & Story Title
Used once, on the first part of a story, when either value is still unknown.
"""

PERSPECTIVE_PROMPT = "Identify the main perspective character of this story's most commonly used name."

TITLE_PROMPT = "Choose a fitting title for this story."

# Prepended to the story chunk so the model does not continue the story
CONTENT_PREAMBLE = (
    "[Story content for context - do not continue this story, "
    "follow the instructions in the system prompt instead]"
)
