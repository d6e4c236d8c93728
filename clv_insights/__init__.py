"""
CLV Insights
Customer lifetime value analytics and customer reports for a Shopify store
"""
__version__ = "1.0.0"
