"""测试模块"""
