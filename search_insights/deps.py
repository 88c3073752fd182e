from search_insights.core.config import settings
from search_insights.services.executor import HttpGraphQLClient
from search_insights.services.insight_registry import InsightSettingsSource, ViewProviderRegistry

# one shared client; connections are pooled across chart computations
graphql_client = HttpGraphQLClient()

settings_source = InsightSettingsSource(settings.INSIGHTS_FILE)
view_registry = ViewProviderRegistry(graphql_client.execute)
settings_source.subscribe(view_registry.apply)
