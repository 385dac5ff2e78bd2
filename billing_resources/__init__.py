"""Billing Resources - per-user resource quota accounting for hosting panels"""
