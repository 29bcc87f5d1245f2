"""
Tale & Trail Game Progression Engine
Pure rules for access codes, timelines, session progress and answers - no web framework or database.
"""

from datetime import timedelta

from taletrail.config import PLAY_WINDOW_HOURS

PLAY_WINDOW = timedelta(hours=PLAY_WINDOW_HOURS)
