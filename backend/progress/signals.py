import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent by the task service when a completion pushes the level up.
# kwargs: identity, level, stats
level_up = Signal()


@receiver(level_up)
def log_level_up(sender, identity=None, level=None, stats=None, **kwargs):
    logger.info(f"Level up: {identity} reached level {level} (xp={getattr(stats, 'xp', '?')})")
