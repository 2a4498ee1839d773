"""Servicio backend de ClothesGuard: usuarios, sensores, historiales y notificaciones."""
