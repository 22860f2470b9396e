"""
Services composing one post migration: the saga itself, the media pipeline,
internal link tracking, resume planning and ledger exports.
"""
