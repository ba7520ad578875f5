"""Messaging core package.

Declared as a regular package so ``app`` never resolves to an unrelated
namespace package installed in site-packages.
"""
