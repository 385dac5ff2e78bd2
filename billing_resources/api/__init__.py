"""API routers, dependencies and middleware"""
