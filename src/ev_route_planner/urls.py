from django.urls import path

from ev_route_planner import views

urlpatterns = [
    path("api/v1/health", views.health_view, name="health"),
    path("api/v1/route-plan", views.route_plan_view, name="route-plan"),
]
