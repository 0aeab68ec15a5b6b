"""Flows package - confirmation / submission workflows"""
