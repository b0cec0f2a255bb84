"""
Image distribution agent - Docker daemon side
"""
