import logging

from django.conf import settings
from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from apps.visualization.ml.insights import InsightConfig

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def start_insight_session(sender, request, user, **kwargs):
    if request is None or not hasattr(request, "session"):
        return
    InsightConfig(**settings.INSIGHT_DEFAULTS).store(request.session)


@receiver(user_logged_out)
def clear_insight_session(sender, request, user, **kwargs):
    if request is None or not hasattr(request, "session"):
        return
    InsightConfig.clear(request.session)
    logger.debug("Insight configuration cleared for %s", user)
