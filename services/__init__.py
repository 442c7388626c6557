"""Service layer of the vocabulary drill engine"""
