"""HTTP surface: route guard middleware, security headers and REST endpoints."""
