import pytest

from search_insights.models.dto import Step
from search_insights.services.timeline import date_axis
from tests.fakes import NOW


@pytest.fixture
def weekly_dates():
    return date_axis(Step(weeks=1), NOW)
