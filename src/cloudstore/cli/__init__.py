"""
cloudstore.cli - Command line dispatcher
"""
