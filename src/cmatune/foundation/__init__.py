"""
Foundation layer: exceptions, logging, checkpoint I/O, search points and benchmark objectives.
"""
