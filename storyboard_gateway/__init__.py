"""
Storyboard AI Gateway

Gateway between storyboard clients and the Gemini text, image and Veo video models.
"""

__version__ = "0.1.0"
