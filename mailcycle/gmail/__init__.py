"""Gmail API adapters: OAuth, message search/fetch, parsing and send."""
