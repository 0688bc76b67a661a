"""Durable client storage backed by SQLAlchemy"""
