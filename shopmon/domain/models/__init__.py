"""Value objects of the Storefront request pipeline."""
