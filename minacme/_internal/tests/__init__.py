"""minacme tests"""
