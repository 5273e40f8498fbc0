"""Identity-resolution bot for face/name matching quizzes.

Learns a one-to-one mapping between presented images and names from
multiple-choice rounds. See SPEC_FULL.md for the component overview.
"""
