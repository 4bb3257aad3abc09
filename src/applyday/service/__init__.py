from applyday.service.client import ApplicationsClient, ApplicationsService

__all__ = ["ApplicationsClient", "ApplicationsService"]
