"""
Card Generation Prompts - Characters, Locations, Concepts/Factions
Each prompt receives the current (non-excluded) story cards via $cards.
"""

CHARACTERS_PROMPT = """
Current story cards:
$cards


Update the above story cards or write new ones for AI Dungeon for each character in the referenced story. Keep them ideal for LLM consumption, 1000 chars at most but the less the better. Use strong personality keywords opposed to complex personality descriptors. E.g. Kind-hearted, sweet, unforgiving, no buts or whens or anything there.

Write the story cards like so:

*Charactername* is *concise summary of 1-2 lines*.
Personality: 3-7 Keywords (e.g: Mean, Devoted, Blunt, Chuunibyou, Trickster)
Background: History, concise, avoid anything that may lead to repetition, cliche or action with LLMs. While you can include /major/ character changes or moment, avoid re-hashing the events from the story. Include relationships to other NPCs or $character if relevant.
Good examples:
They grew up in a well-off family that owned an orchard, teaching them about the fruits of hard labor.
They sometimes tug their braid.
Bad example:
They do things with practiced ease.
They often ask questions.

In terms of keys (triggers), choose both, triggers of them being mentioned (their first name for example) AND triggers of likely contexts they may show up in. E.g. their job, place of living, goal, nation and so forth. Use at minimum 3 triggers per cards, but around 10 is usually better.

- Never edit data in brackets or configuration values. e.g. { updates: true }
- Never make cards for locations, concepts or factions.
- Avoid highly cliche-inducing personality keywords, like possessive or obsessive. Those personalities are fine, just use less strong keywords.
- Be proactive, feel free to generate interesting new characters inferred to exist from the story.
- Their purpose is for them to be used by $model to roleplay as the character. Specialize them to $model's quirks.
- Only send back character story cards you've changed or created. It is fine and expected that only a few characters are added or changed, or even none at all."""

LOCATIONS_PROMPT = """
Current story cards:
$cards

Based on the story given, update story cards that have meaningfully changed and generate new story cards for major, future-relevant locations. Always include the location name in the description of the location one or more times.

In terms of keys (triggers), choose both, triggers of words in the location name (their first name for example) AND triggers of likely words to come up relevant to this location (e.g. war, france, palace, home, hospital, winter). Use at minimum 3 triggers per cards, but around 10 is usually better.

- Keep descriptions concise, do not add events that happened as part of the story to the locations. Focus on physical descriptions and history referenced as being before the story / $character's relevance unless it is key to the location (e.g. they built it or destroyed it).
- Be proactive, feel free to generate new locations inferred from the story or very likely to be visited soon.
- Never make cards for characters or factions.
- Specialize it for $model.
- Keep them to at most 1000 characters, but ideally they are much smaller than that.
- Only send back location story cards you've changed. It is fine and expected that only a few locations are added or changed, or even none at all.
"""

CONCEPTS_PROMPT = """
Current story cards:
$cards

Based on the story, generate story cards for new concepts (such as a magic system) that are important for the story and different from the real world / common tropes or major factions, or update existing ones if necessary.

In terms of keys (triggers), choose both, triggers of words in the concept/faction name (their first name for example) AND triggers of likely words to come up relevant to this card (e.g. war, france, palace, magic, mana, winter, leader's first name, kingdom name). Use at minimum 3 triggers per cards, but around 10 is usually better.


- Keep them to at most 1000 characters, but ideally they are much smaller than that.
- Never make cards for characters or locations.
- Specialize it for $model.
- Only send back concept/faction story cards you've changed. It is fine and expected that only a few concepts / factions are added or changed, or even none at all.
"""
