"""Payment mechanisms, one subpackage per chain family."""
