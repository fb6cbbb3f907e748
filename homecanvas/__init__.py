"""
Home Canvas: composite a product into a scene photo with a generative image model.
"""
