"""Resource routers mounted by school_admin.api.v1.router."""
