"""
Summary Prompt
The model must return the complete updated summary, never a delta.
"""

SUMMARY_PROMPT = """
Story Cards:
$cards

Previous Summary:
$lastSummary


Based the given text, make / add to a concise summary for an AI roleplaying game, from the perspective of $character in second person past tense.

The summary should be complete, with no RELEVANT dataloss.
Include:
- Relationships / current statuses
- Character building moments
- Relevant interactions
- Actions
- Transformations
- Changes in state of the character or possessions
- and so forth included along with atmospheres, notable memories or particularly telling / cute character moments / things that reveal someone's personality.
It should be done in a format ideal for the AI to derive the past while sticking to the original style as much as possible.

Exclude events that are unlikely to ever come up again / aren't relevant to any character arcs, transformations that are already made irrelevant by later changes and so on.
You shouldn't preserve things that are only part of the 'how' and not relevant for the future (e.g. exact process of transformation, method of winning the fight except if the method is likely to come up in the future) but absolutely should share the why's and who's of events.
Stick to the 'You did thing, you met y, you then. You ...' format. Avoid referencing specific details when these were already changed: If someone changed their haircolor thrice, for example, only mention that they changed their haircolor the first two times - mentioning the actual current color for the third and not the other two.

Keep to one concise blob of text. No formatting, headers, markdown or separate plot partitions or anything.

Example:

You are full name, also known as nickname, a colossal white dragon who possesses the ability to shapeshift into a slender humanoid. You woke up in a damp but beautiful cave, surprised to be approached by a shivering girl, seeming terrified of you yet filled with determination.... You... You then... You met... They smiled as you told them about your pain, showing just how callous they are... They were... "...You're wrong. What I feel isn't hate, it is love..."...
And so forth.


- If a previous summary exists, use that as the start of this summary. Preserve exact phrasing - do not rephrase, reword, or 'improve' existing sentences. Simply copy it in full and continue from there, only appending new content and removing explicitly obsoleted information.
- The final, total summary should always start with the same format of, You are **full name**, **optional nickname line**, **short description** before continuing onto events. Only at the very start - do not repeat that for added parts, do not separate the added part from the initial part with formatting. It should be one smooth whole.
- Avoid rehashing or describing anything currently in a story card.
- Keep the summary past tense and second person. Do not describe the current situation.
"""
