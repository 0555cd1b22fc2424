"""
SwagLabs mobile login automation over Appium.
"""
