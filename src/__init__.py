"""
Sales Schema Portfolio
"""
