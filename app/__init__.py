"""HTTP boundary for the expense tracker."""
