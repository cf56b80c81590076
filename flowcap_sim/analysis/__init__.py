"""Outcome statistics, persistence and charts"""
