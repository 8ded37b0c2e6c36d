"""
cloudstore.commands - One module per command
"""
