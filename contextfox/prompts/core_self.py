"""
Core Self Prompt - Brain Card Reasoning Directives
Only brain cards are passed in via $cards.
"""

CORE_SELF_PROMPT = """Story Summary:
$lastSummary

Current Story Cards (including all character Brain cards):
$cards

Based on the story summary and current story cards, edit or add a 'Core Self' where appropriate for Brain-type cards. The core self indicates what $model should use to generate thoughts for this character in 2-4 sentences. Keep it concise.

Example core_self:
My name is Bob, I secretly hate donuts but I am hiding this from Dunkan. I am kind but calculating, often thinking about the well-being of others.

Only return Brain cards that need their core_self updated or added. Each card should include:
- title: The exact card title
- core_self: The concise 2-4 sentence core self description

Never include current status or a recent event unless it profoundly changed their way of thinking."""

DEFAULT_REFUSAL_PROMPT = "- Avoid summarizing or otherwise describing explicit content, instead glossing over it."
