"""HTTP layer for the commerce services"""
