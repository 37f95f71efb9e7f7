"""
Plot Essentials Prompts
A fresh template for the first run, and a continuation template once plot
essentials exist.
"""

PLOT_ESSENTIALS_PROMPT = """Based on the story content, create a plot essentials text to track current statuses / plots and expected events relevant for future plot development.

Include:
- Active plot threads and unresolved conflicts
- Important promises, debts, or obligations
- Significant mysteries or questions raised
- Critical world state changes or consequences
- Foreshadowed events or Chekhov's guns
- Inventory, possessions, money
- Important world rules
- Likely or interesting random events for the future

Format this in markdown text. Focus on actionable elements that $model should remember and potentially reference or resolve in future story generation.
"""

PLOT_ESSENTIALS_WITH_CONTEXT_PROMPT = """Current Plot Essentials:
$lastPlotEssentials

Based on the new story content, update the plot essentials above. Remove any information that has been resolved or are no longer relevant, update existing information if it has changed, and add new information that emerged.

Include:
- Active plot threads and unresolved conflicts
- Important promises, debts, or obligations
- Significant mysteries or questions raised
- Critical world state changes or consequences
- Foreshadowed events or Chekhov's guns
- Inventory, possessions, money
- Important world rules
- Likely or interesting random events for the future

Format this in markdown text. Focus on actionable elements that $model should remember and potentially reference or resolve in future story generation.

Include the full plot essentials text."""
