from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
	AnalyticsEvent,
	AuditLog,
	Booking,
	CannedResponse,
	Commission,
	Notification,
	Payment,
	Payout,
	PlatformSettings,
	Property,
	Review,
	SupportMessage,
	SupportTicket,
	Tour,
	User,
	Vehicle,
)


@admin.register(User)
class CustomUserAdmin(BaseUserAdmin):
	list_display = ('username', 'email', 'role', 'verified', 'banned', 'is_active', 'last_active_at')
	list_filter = BaseUserAdmin.list_filter + ('role', 'verified', 'banned')
	search_fields = BaseUserAdmin.search_fields + ('business_name', 'phone')
	fieldsets = BaseUserAdmin.fieldsets + (
		(
			'Marketplace',
			{'fields': ('role', 'phone', 'business_name', 'verified', 'banned', 'ban_reason', 'avatar')},
		),
	)
	add_fieldsets = BaseUserAdmin.add_fieldsets + (
		(
			'Marketplace',
			{
				'classes': ('wide',),
				'fields': ('role', 'phone', 'business_name'),
			},
		),
	)


class ListingAdmin(admin.ModelAdmin):
	list_display = ('name', 'owner', 'city', 'price', 'approval_status', 'is_featured', 'created_at')
	list_filter = ('approval_status', 'is_featured', 'city')
	search_fields = ('name', 'city', 'owner__username', 'owner__email')
	raw_id_fields = ('owner', 'reviewed_by')


admin.site.register(Property, ListingAdmin)
admin.site.register(Vehicle, ListingAdmin)
admin.site.register(Tour, ListingAdmin)


class PaymentInline(admin.TabularInline):
	model = Payment
	extra = 0


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
	list_display = ('id', 'customer', 'service_type', 'status', 'total_amount', 'start_date', 'created_at')
	list_filter = ('service_type', 'status')
	search_fields = ('customer__username', 'customer__email')
	raw_id_fields = ('customer', 'property', 'vehicle', 'tour')
	inlines = [PaymentInline]


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
	list_display = ('booking', 'provider', 'amount', 'rate', 'status', 'calculated_at')
	list_filter = ('status',)


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
	list_display = ('provider', 'amount', 'currency', 'method', 'status', 'requested_at')
	list_filter = ('status', 'method')


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
	list_display = ('user', 'service_type', 'rating', 'is_hidden', 'is_flagged', 'is_featured', 'created_at')
	list_filter = ('service_type', 'rating', 'is_hidden', 'is_flagged', 'is_featured')
	search_fields = ('content', 'user__username')


class SupportMessageInline(admin.TabularInline):
	model = SupportMessage
	extra = 0
	fields = ('sender', 'sender_type', 'content', 'is_internal', 'attachment', 'created_at')
	readonly_fields = ('created_at',)


@admin.register(SupportTicket)
class SupportTicketAdmin(admin.ModelAdmin):
	list_display = ('id', 'subject', 'user', 'category', 'priority', 'status', 'assigned_to', 'created_at')
	list_filter = ('status', 'priority', 'category')
	search_fields = ('subject', 'description', 'user__username', 'user__email')
	inlines = [SupportMessageInline]


@admin.register(CannedResponse)
class CannedResponseAdmin(admin.ModelAdmin):
	list_display = ('title', 'category', 'usage_count', 'is_active')
	list_filter = ('category', 'is_active')


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
	list_display = ('created_at', 'user', 'action', 'resource_type', 'resource_id', 'severity', 'ip_address')
	list_filter = ('severity', 'resource_type')
	search_fields = ('action', 'user__username', 'ip_address')
	readonly_fields = [field.name for field in AuditLog._meta.fields]

	def has_add_permission(self, request):
		return False

	def has_change_permission(self, request, obj=None):
		return False


admin.site.register(Notification)
admin.site.register(AnalyticsEvent)
admin.site.register(PlatformSettings)
