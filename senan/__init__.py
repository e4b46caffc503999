# Senan: Discord FAQ / lore bot for the game's community server.
# Answers questions from a local JSON knowledge base via the Anthropic API and
# carries the admin tooling around it (profiles, patch notes, dashboard).

__version__ = "0.4.0"
